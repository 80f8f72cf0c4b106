from ado_link.main import main

raise SystemExit(main())
