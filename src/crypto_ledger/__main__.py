"""Allow running the ledger CLI as: python -m crypto_ledger <command>."""

import sys

from crypto_ledger.cli import main

sys.exit(main())
