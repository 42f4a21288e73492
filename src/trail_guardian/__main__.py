from trail_guardian.cli import main

main()
