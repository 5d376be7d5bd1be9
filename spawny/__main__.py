from spawny.cli import main

main()
