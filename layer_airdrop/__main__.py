import sys

from layer_airdrop.cli import main

sys.exit(main())
