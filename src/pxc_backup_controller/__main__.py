import sys

from pxc_backup_controller.main import main

sys.exit(main())
