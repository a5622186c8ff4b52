"""
Default contents of the files scaffolded into the application checkout.
"""

ENV_EXAMPLE = """\
# Port Configuration
PORT=3456

# RabbitMQ Configuration (Public)
NEXT_PUBLIC_RABBITMQ_HOST=localhost
NEXT_PUBLIC_RABBITMQ_PORT=15672
NEXT_PUBLIC_RABBITMQ_VHOST=/

# RabbitMQ Credentials (Private)
RABBITMQ_USERNAME=guest
RABBITMQ_PASSWORD=guest
"""

NEXT_CONFIG = """\
/** @type {import('next').NextConfig} */
const nextConfig = {
  output: 'standalone',
  experimental: {
    serverActions: {
      bodySizeLimit: '2mb',
    },
  },
  env: {
    RABBITMQ_USERNAME: process.env.RABBITMQ_USERNAME,
    RABBITMQ_PASSWORD: process.env.RABBITMQ_PASSWORD,
  }
}

module.exports = nextConfig
"""

GITIGNORE_BLOCK = """\
# Environment variables
.env.local
.env.production
.env.development.local
.env.test.local
.env.production.local

# PM2 logs
logs/
"""

BLOCK_BEGIN = "# >>> shipyard managed block >>>"
BLOCK_END = "# <<< shipyard managed block <<<"
