from wsbundle.cli import main

raise SystemExit(main())
