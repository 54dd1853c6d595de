import sys

from ssh_vnc_lockdown.main import main


sys.exit(main())
