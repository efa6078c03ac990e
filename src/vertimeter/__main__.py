from vertimeter.app import main

main()
