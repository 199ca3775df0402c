#!/usr/bin/env python3
"""Thin entrypoint for the tdash terminal dashboard."""

from __future__ import annotations

from tdash_core.app import main


if __name__ == "__main__":
    raise SystemExit(main())
