"""DCoin Vault Meta information.
   DCoin Vault keeps wallet private keys encrypted at rest and exposes
   a single active wallet for signing.
"""
__title__ = 'dcoin_vault'
__description__ = (
   'DCoin Vault keeps wallet private keys encrypted at rest '
   'and exposes a single active wallet for signing.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2025 DCoin Developers'
__author__ = 'DCoin Developers'
__license__ = 'Apache-2.0'
