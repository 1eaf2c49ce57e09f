"""Target framework definitions used by the template provider and build runner."""

STACKS = {
    "nextjs": {
        "name": "Next.js App Router + Tailwind CSS",
        "template_dir": "nextjs",
        "required_files": [
            "/package.json",
            "/tsconfig.json",
            "/next.config.js",
            "/next-env.d.ts",
            "/postcss.config.js",
            "/tailwind.config.js",
            "/src/app/globals.css",
            "/src/app/layout.tsx",
            "/src/app/page.tsx",
        ],
        "entry_page": "/src/app/page.tsx",
        "install_command": ["npm", "install", "--no-audit", "--no-fund"],
        "build_command": ["npm", "run", "build"],
        "code_extensions": [".tsx", ".ts", ".jsx", ".js"],
        "path_aliases": {"@/": "/src/"},
        "build_env": {"CI": "true", "FORCE_COLOR": "0", "NEXT_TELEMETRY_DISABLED": "1"},
    },
}
