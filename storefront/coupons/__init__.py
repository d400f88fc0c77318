"""Module 'coupons': store (repository), émission fidélité et validation (service)."""
