import sys

from gcloud_st.cli import main

sys.exit(main())
