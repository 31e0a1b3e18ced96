from kol_tracker.cli import main

main()
