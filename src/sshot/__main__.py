from sshot.cli import main

main()
