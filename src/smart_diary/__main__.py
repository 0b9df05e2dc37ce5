from smart_diary.cli.main import main

main()
