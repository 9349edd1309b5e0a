# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2024 zrecog contributors

"""Utility helpers shared across the zrecog package."""

from .env import env_int, env_str
from .json_utils import dump_json, json_ready

__all__ = ["dump_json", "env_int", "env_str", "json_ready"]
