#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Template Generator
Writes the quotation workbook template served by
GET /download-template-with-articles to QUOTE_TEMPLATE_PATH (or the path
given as first argument).
"""
import sys
from pathlib import Path

# Add src to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT / 'src'))


def main():
    from quote_bridge import quote_config as cfg
    from quote_bridge.workbook_template import write_template

    target = sys.argv[1] if len(sys.argv) > 1 else cfg.TEMPLATE_PATH
    print(f"[OK] Template written: {write_template(target)}")


if __name__ == "__main__":
    main()
