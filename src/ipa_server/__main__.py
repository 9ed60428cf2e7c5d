# SPDX-License-Identifier: MIT
"""Allow ``python -m ipa_server``."""

from .cli import main

main()
