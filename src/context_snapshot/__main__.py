from context_snapshot.cli import main

raise SystemExit(main())
