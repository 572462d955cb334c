from bugbounty_mcp.mcp_server.cli import main

raise SystemExit(main())
