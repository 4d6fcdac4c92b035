import sys

from molsynth.cli.app import main

sys.exit(main())
