#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Entry point for ``python -m zrecog``."""
from __future__ import annotations

from .cli import main

if __name__ == "__main__":
    main()
