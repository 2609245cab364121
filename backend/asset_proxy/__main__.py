from asset_proxy.server import main

main()
