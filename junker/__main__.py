from junker.cli.main import main

main()
