from geotrack.app.cli import main

raise SystemExit(main())
