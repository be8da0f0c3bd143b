"""Allow ``python -m rpl_stake_watcher``."""
import sys

from rpl_stake_watcher.main import main

sys.exit(main())
