"""Vault Envelope Meta information.
   Vault Envelope encrypts vault secrets client-side with a master password.
"""
__title__ = 'vault_envelope'
__description__ = (
   'Vault Envelope encrypts vault secrets with a key derived '
   'from a master password (PBKDF2 + AES-GCM).'
)
__version__ = '0.1.0'
__copyright__ = 'Copyright (c) 2023 Jesus Lara'
__author__ = 'Jesus Lara'
__author_email__ = 'jesuslarag@gmail.com'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/phenobarbital/vault-envelope'
