from mobile_crop_tool.app import main

main()
