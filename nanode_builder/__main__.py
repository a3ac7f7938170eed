from nanode_builder.builder import main

main()
