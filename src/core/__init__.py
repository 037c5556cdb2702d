# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Core package for the LRS metrics service.

This package contains the shared building blocks:
- config: Application configuration and LRS instance definitions
- context: Per-request correlation id and deadline
- errors: Exception hierarchy
- resilience: Circuit breakers and graceful degradation
"""
