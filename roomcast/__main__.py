from roomcast.main import main

main()
