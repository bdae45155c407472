#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Stamp one line of text per CSV row onto a PDF, PNG, or JPEG template.
"""

import bulk_text_render.cli


if __name__ == "__main__":
	bulk_text_render.cli.main()
