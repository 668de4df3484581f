import sys

from batch_capture.main import main

sys.exit(main())
