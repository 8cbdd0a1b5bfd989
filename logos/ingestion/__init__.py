"""Inbound e-mail parsing, content extraction and reading creation."""