import sys

from ldapmetrics.cli import main

sys.exit(main())
