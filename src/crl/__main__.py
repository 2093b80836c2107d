from crl.cli import main

raise SystemExit(main())
