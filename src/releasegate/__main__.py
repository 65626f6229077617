from releasegate.main import main

raise SystemExit(main())
