"""LRS Metrics Service.

Learning analytics metrics computed from xAPI statements held in one or
more Learning Record Stores, served with caching, circuit breaking and
graceful degradation.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
