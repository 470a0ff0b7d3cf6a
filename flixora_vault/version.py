"""Flixora Vault Meta information.
   Flixora Vault keeps merchant secrets encrypted in process memory.
"""
__title__ = 'flixora_vault'
__description__ = (
   'Flixora Vault keeps merchant secrets encrypted in process memory '
   'using a self-contained AES-256 and PBKDF2 engine.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2024 Flixora'
__author__ = 'Flixora'
__author_email__ = 'dev@flixora.io'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/flixora/flixora-vault'
