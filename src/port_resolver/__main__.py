from port_resolver.cli import main

raise SystemExit(main())
