from swapduel.cli import main

raise SystemExit(main())
