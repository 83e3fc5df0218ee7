# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0


class ConfigurationError(Exception):
    """Required configuration is missing or invalid"""


class GenerationError(Exception):
    """The generation backend reported a failed run"""
