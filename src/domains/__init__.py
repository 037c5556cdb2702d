# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for the LRS metrics service.

Domains:
    metrics: Metric providers, computation, instances and cache admin.
"""
