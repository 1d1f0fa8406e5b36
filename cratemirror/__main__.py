from cratemirror.cli import main

main()
