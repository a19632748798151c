from receipts_core.cli import main

raise SystemExit(main())
