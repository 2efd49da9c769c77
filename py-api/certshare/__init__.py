"""Certificate share API: view a certificate and publish it to LinkedIn."""
