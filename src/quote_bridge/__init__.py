"""
Quote Bridge - Excel / free text to Lexware quotations
Accepts quote data as an .xlsx workbook or pasted order text, validates it,
builds a Lexware quotation payload, submits it and fetches the PDF.
"""

__version__ = "0.1.0"
