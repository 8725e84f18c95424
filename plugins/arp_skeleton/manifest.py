PLUGIN_MANIFEST = {
    "name": "arp-skeleton",
    "version": "0.1.0",
    # Dotted import path used by the plugin loader to build the PluginModule.
    "module": "arp_skeleton.plugin:create_plugin",
    "authors": "Henrique Dias <mrhdias@gmail.com>",
    "description": "Shared library skeleton",
    "license": "MIT",
}
