from kurral_cli.pipeline_cmd import main

main()
