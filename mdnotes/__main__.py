from mdnotes.cli import main

main()
