"""Command-line tools for knowledgeVault.

- ``python -m src.cli stats`` — file statistics
- ``python -m src.cli list`` — newest stored files
- ``python -m src.cli cleanup`` — remove uploads stuck in ``uploading``
- ``python -m src.cli ocr <image>`` — recognise text in a local image
"""
